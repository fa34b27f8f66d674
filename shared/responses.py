def ok(data=None, message: str | None = None, **extra) -> dict:
    """Success envelope shared by every endpoint: {success, data, message}."""
    body = {"success": True, "data": data}
    if message is not None:
        body["message"] = message
    body.update(extra)
    return body


def fail(message: str, error: str) -> dict:
    return {"success": False, "message": message, "error": error}
