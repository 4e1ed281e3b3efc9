import secrets
import string
import time

SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 9


def generate_order_number(prefix: str = "YO") -> str:
    """
    Human-facing order number: `<prefix>-<epoch millis>-<9 random chars>`.

    No central sequence is needed; the random suffix keeps numbers generated
    in the same millisecond apart.
    """
    timestamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{timestamp}-{suffix}"
