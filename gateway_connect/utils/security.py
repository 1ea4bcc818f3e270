import hmac, hashlib, base64

def hmac_sha256_hex(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()

def sha256_hex(payload: str) -> str:
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()

def b64(payload: str) -> str:
    return base64.b64encode(payload.encode('utf-8')).decode('utf-8')

def basic_auth(user: str, password: str = "") -> str:
    return "Basic " + b64(f"{user}:{password}")
