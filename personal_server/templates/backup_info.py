"""Workload backup metadata template."""

from datetime import datetime
from typing import List

from jinja2 import Environment, StrictUndefined

BACKUP_INFO_FILE = "backup_info.txt"

BACKUP_INFO_TEMPLATE = """{{ title }} Backup Information
{{ underline }}
Backup Date: {{ backup_date }}
Backup Directory: {{ backup_dir }}
Namespace: {{ namespace }}
Pod: {{ pod }}
{% if container %}Container: {{ container }}
{% endif %}
Files:
{% for file in files %}  {{ file }}
{% endfor %}
Restore:
  personal-server backup --decrypt <archive>.gpg --passphrase <passphrase>
  then load the files above into a fresh {{ title }} deployment
"""

_environment = Environment(undefined=StrictUndefined, keep_trailing_newline=True)


def render_backup_info(
    title: str,
    backup_dir: str,
    namespace: str,
    pod: str,
    files: List[str],
    container: str = "",
) -> str:
    """Render the metadata file written next to a workload's backup files."""
    template = _environment.from_string(BACKUP_INFO_TEMPLATE)
    return template.render(
        title=title,
        underline="=" * (len(title) + len(" Backup Information")),
        backup_date=datetime.now().strftime("%a, %d %b %Y %H:%M:%S"),
        backup_dir=backup_dir,
        namespace=namespace,
        pod=pod,
        container=container,
        files=files,
    )
