# app/services/backup/errors.py


class BackupError(RuntimeError):
    pass


class BackupInProgressError(BackupError):
    """Une exécution du pipeline est déjà en cours dans ce processus."""


class TransportNotConfiguredError(BackupError):
    pass
