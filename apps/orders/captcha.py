import logging

import requests

log = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


def verify_captcha(token: str, *, secret: str, remote_ip: str | None = None, timeout: int = 10) -> bool:
    """Ask reCAPTCHA whether ``token`` is genuine. Transport errors propagate."""
    data = {"secret": secret, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip
    resp = requests.post(RECAPTCHA_VERIFY_URL, data=data, timeout=timeout)
    resp.raise_for_status()
    body = resp.json()
    if not body.get("success"):
        log.info("[orders] reCAPTCHA rejected token: %s", body.get("error-codes"))
        return False
    return True
