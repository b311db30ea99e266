import re

# Base58 alphabet excludes 0, O, I and l
_PUBLIC_KEY_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{32,44}$')


def validate_public_key(public_key: str) -> bool:
    """Check that a string looks like a base58-encoded Solana public key"""
    if not isinstance(public_key, str):
        return False
    return bool(_PUBLIC_KEY_PATTERN.match(public_key))
