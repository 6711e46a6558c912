import json
import os

from solders.keypair import Keypair

from pool_keeper.errors import KeystoreError


def load_keypair(path: str) -> Keypair:
    """Load a keypair file written by the Solana CLI (a JSON array of 64 bytes)."""
    keyfile_name = os.path.expanduser(path)
    try:
        with open(keyfile_name, 'r') as keyfile:
            data = keyfile.read()
    except OSError as e:
        raise KeystoreError(keyfile_name, e.strerror or str(e)) from e
    try:
        int_list = json.loads(data)
        return Keypair.from_bytes(bytes(int_list))
    except (ValueError, TypeError) as e:
        raise KeystoreError(keyfile_name, str(e)) from e
