import json

def log_event(level, message, **context):
    """
    Prints one structured JSON line for the given level and message.
    Extra keyword arguments are merged in as context; values that JSON
    can't encode (datetimes, Decimals) are stringified.
    """
    log = {"level": level, "message": message}
    log.update(context)
    print(json.dumps(log, default=str))
