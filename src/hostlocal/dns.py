"""resolv.conf parsing for the DNS section of ADD results."""

from __future__ import annotations

from hostlocal.errors import ResolvConfError
from hostlocal.models.result import DNS
from hostlocal.utils.logger import get_logger

logger = get_logger(__name__)


def parse_resolv_conf(path: str) -> DNS:
    """
    Parse a resolv.conf file into DNS settings.

    Understands ``nameserver``, ``domain``, ``search`` and ``options``.
    Comments (``#`` or ``;``), blank lines and other directives are ignored.

    Raises:
        ResolvConfError: If the file cannot be read.
    """
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        raise ResolvConfError(path, e.strerror or str(e))
    except UnicodeDecodeError as e:
        raise ResolvConfError(path, f"not valid UTF-8: {e.reason}")

    dns = DNS()
    for line in lines:
        line = line.strip()
        if not line or line[0] in "#;":
            continue

        fields = line.split()
        directive, values = fields[0], fields[1:]
        if not values:
            continue

        if directive == "nameserver":
            dns.nameservers.append(values[0])
        elif directive == "domain":
            dns.domain = values[0]
        elif directive == "search":
            dns.search.extend(values)
        elif directive == "options":
            dns.options.extend(values)

    logger.debug(
        f"Parsed {path}: {len(dns.nameservers)} nameservers, "
        f"domain={dns.domain or '-'}, search={dns.search}"
    )
    return dns
