import hashlib
import secrets


def new_token():
    return secrets.token_hex(16)


def digest(data):
    return hashlib.sha256(data).hexdigest()
