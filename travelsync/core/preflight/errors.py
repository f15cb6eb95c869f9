class PreflightVersionNotFoundError(LookupError):
    pass
