"""SSH key utilities for build instances."""

from __future__ import annotations

import base64
import hashlib
import io

import paramiko


def compute_fingerprint(public_key: str) -> str:
    """Compute SSH key fingerprint (MD5 colon-separated format).

    Args:
        public_key: SSH public key content (e.g., "ssh-rsa AAAA... comment")

    Returns:
        Fingerprint in format "aa:bb:cc:..." or empty string if the key
        cannot be decoded.
    """
    parts = public_key.strip().split()
    if len(parts) < 2:
        return ""
    try:
        decoded = base64.b64decode(parts[1], validate=True)
    except ValueError:
        return ""
    digest = hashlib.md5(decoded).hexdigest()
    return ":".join(digest[i : i + 2] for i in range(0, len(digest), 2))


def generate_key_pair(comment: str, bits: int = 2048) -> tuple[str, str]:
    """Generate a throwaway RSA key pair.

    Returns:
        Tuple of (private_key_pem, public_key_openssh).
    """
    key = paramiko.RSAKey.generate(bits)
    buf = io.StringIO()
    key.write_private_key(buf)
    public = f"{key.get_name()} {key.get_base64()} {comment}"
    return buf.getvalue(), public


def generate_key_label(instance_name: str) -> str:
    """Label for a key registered on SoftLayer for one build."""
    return f"softbake-{instance_name}"
