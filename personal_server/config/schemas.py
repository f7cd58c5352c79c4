"""Configuration file schemas for personal-server CLI."""

MODULE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "namespace": {"type": "string"},
        "secrets": {
            "type": "object",
            "additionalProperties": {"type": ["string", "number", "boolean"]},
        },
    },
    "required": ["name"],
}

BACKUP_SCHEMA = {
    "type": "object",
    "properties": {
        "webdav_host": {
            "type": "string",
            "pattern": r"^(https?://.+)?$",
            "description": "Base URL of the WebDAV collection archives are uploaded to",
        },
        "webdav_username": {"type": "string"},
        "webdav_password": {"type": "string"},
        "passphrase": {
            "type": "string",
            "description": "Symmetric passphrase used to encrypt archives",
        },
        "cron": {
            "type": "string",
            "description": "Cron expression used by 'backup schedule'",
        },
        "sentry_dsn": {"type": "string"},
        "staging_dir": {"type": "string", "minLength": 1},
        "max_workers": {"type": "integer", "minimum": 1},
        "cipher_algo": {"type": "string", "minLength": 1},
    },
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "general": {
            "type": "object",
            "properties": {
                "domain": {"type": "string"},
                "namespaces": {"type": "array", "items": {"type": "string"}},
            },
        },
        "backup": BACKUP_SCHEMA,
        "modules": {"type": "array", "items": MODULE_SCHEMA},
        "pet-projects": {"type": "array", "items": {"type": "object"}},
    },
}
