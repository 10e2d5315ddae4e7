from app.store import save


def handler(payload):
    save(payload)
