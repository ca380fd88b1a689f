from __future__ import annotations

"""Built-in candidate lists.

Plain immutable data: `build_candidates` receives a `ProfileCatalog` instead of
reading module globals, so callers and tests can pass their own catalog.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

SERVICE_NAMES: Mapping[int, str] = MappingProxyType(
    {
        21: "ftp",
        22: "ssh",
        23: "telnet",
        25: "smtp",
        53: "dns",
        80: "http",
        110: "pop3",
        143: "imap",
        443: "https",
        445: "smb",
        3306: "mysql",
        3389: "rdp",
        5432: "postgresql",
        5900: "vnc",
        8080: "http-proxy",
        8443: "https-alt",
        27017: "mongodb",
    }
)

QUICK_PORTS: Tuple[int, ...] = (21, 22, 23, 25, 80, 110, 143, 443, 445, 3306, 3389, 8080)

TOP_PORTS: Tuple[int, ...] = (
    7, 9, 13, 21, 22, 23, 25, 26, 37, 53, 79, 80, 81, 88, 106, 110, 111, 113, 119, 135,
    139, 143, 144, 179, 199, 389, 427, 443, 444, 445, 465, 513, 514, 515, 543, 544,
    548, 554, 587, 631, 646, 873, 990, 993, 995, 1025, 1026, 1027, 1028, 1029, 1110,
    1433, 1720, 1723, 1755, 1900, 2000, 2001, 2049, 2121, 2717, 3000, 3128, 3306,
    3389, 3986, 4899, 5000, 5009, 5051, 5060, 5101, 5190, 5357, 5432, 5631, 5666,
    5800, 5900, 6000, 6001, 6646, 7070, 8000, 8008, 8009, 8080, 8081, 8443, 8888,
    9100, 9999, 10000, 32768, 49152, 49153, 49154, 49155, 49156, 49157,
)

COMMON_PATHS: Tuple[str, ...] = (
    "/admin", "/login", "/dashboard", "/wp-admin", "/administrator", "/backup",
    "/config", "/test", "/dev", "/api", "/uploads", "/files", "/images",
    "/css", "/js", "/robots.txt", "/sitemap.xml", "/.htaccess", "/.env",
    "/config.json", "/package.json", "/phpinfo.php", "/admin.php", "/login.php",
    "/register.php", "/vendor/", "/includes/", "/cgi-bin/", "/.git/", "/.svn/",
)

MEDIUM_PATHS: Tuple[str, ...] = (
    "/admin", "/login", "/dashboard", "/wp-admin", "/administrator", "/backup",
    "/config", "/test", "/dev", "/api", "/uploads", "/files", "/images",
    "/css", "/js", "/static", "/assets", "/media", "/public", "/private",
    "/robots.txt", "/sitemap.xml", "/.htaccess", "/.env", "/.git/", "/.svn/",
    "/config.json", "/package.json", "/composer.json", "/bower.json",
    "/phpinfo.php", "/admin.php", "/login.php", "/register.php", "/profile.php",
    "/user.php", "/account.php", "/settings.php", "/config.php", "/database.php",
    "/vendor/", "/includes/", "/lib/", "/libs/", "/core/", "/app/", "/src/",
    "/cgi-bin/", "/scripts/", "/tmp/", "/temp/", "/cache/", "/logs/", "/log/",
    "/old/", "/backup/", "/backups/", "/db/", "/sql/", "/data/", "/download/",
    "/downloads/", "/doc/", "/docs/", "/documentation/", "/manual/", "/help/",
    "/faq/", "/about/", "/contact/", "/support/", "/forum/", "/forums/",
    "/search/", "/news/", "/blog/", "/shop/", "/store/", "/cart/", "/checkout/",
    "/payment/", "/paypal/", "/invoice/", "/billing/", "/subscribe/", "/unsubscribe/",
    "/panel/", "/console/", "/cpanel/", "/controlpanel/", "/phpmyadmin/",
    "/adminer/", "/manager/", "/webmail/", "/mail/", "/email/", "/smtp/",
    "/server/", "/status/", "/health/", "/version/", "/info/", "/debug/",
    "/.well-known/security.txt", "/.well-known/change-password",
    "/wp-content/", "/wp-includes/", "/wp-json/", "/xmlrpc.php", "/readme.html",
    "/license.txt", "/changelog.txt", "/install.php", "/setup.php",
    "/maintenance.php", "/test.php", "/info.php", "/example.php",
)

EXTENSIVE_EXTRA_PATHS: Tuple[str, ...] = (
    "/v1/", "/v2/", "/api/v1/", "/api/v2/", "/rest/", "/graphql/", "/swagger/",
    "/readme/", "/changelog/", "/license/", "/security/", "/privacy/", "/terms/",
    "/tos/", "/policy/", "/policies/", "/legal/", "/disclaimer/", "/credits/",
    "/team/", "/staff/", "/employees/", "/jobs/", "/careers/", "/hiring/",
    "/apply/", "/application/", "/internship/", "/events/", "/calendar/",
    "/schedule/", "/booking/", "/reservation/", "/appointment/", "/gallery/",
    "/photos/", "/video/", "/videos/", "/stream/", "/streaming/", "/podcast/",
    "/podcasts/", "/radio/", "/tv/", "/live/", "/broadcast/", "/social/",
    "/feed/", "/feeds/", "/rss/", "/xml/", "/json/", "/csv/", "/export/",
    "/import/", "/migrate/", "/transfer/", "/sync/", "/webhook/", "/hooks/",
    "/cron/", "/tasks/", "/queue/", "/worker/", "/batch/", "/scheduled/",
    "/analytics/", "/stats/", "/statistics/", "/metrics/", "/monitor/", "/monitoring/",
    "/report/", "/reports/", "/reporting/", "/dashboard/", "/charts/", "/graphs/",
    "/survey/", "/surveys/", "/poll/", "/polls/", "/vote/", "/voting/", "/quiz/",
    "/form/", "/forms/", "/submission/", "/submissions/", "/feedback/", "/review/",
    "/rating/", "/ratings/", "/comment/", "/comments/", "/discussion/", "/discussions/",
)

STANDARD_SUBDOMAINS: Tuple[str, ...] = (
    "www", "mail", "ftp", "localhost", "webmail", "smtp", "pop", "ns1", "webdisk",
    "ns2", "cpanel", "whm", "autodiscover", "autoconfig", "admin", "blog", "api",
    "dev", "staging", "test", "demo", "beta", "shop", "store", "mobile", "m",
    "forum", "support", "help", "docs", "vpn", "secure", "ssl", "cdn", "static",
    "media", "images", "img", "downloads", "files", "portal", "dashboard", "panel",
    "app", "apps", "cloud", "backup", "db", "database", "mysql", "postgres",
    "redis", "git", "gitlab", "jenkins", "ci", "monitoring", "status", "stats",
    "analytics", "metrics", "logs", "kibana", "grafana", "prometheus", "alertmanager",
)

ADDITIONAL_SUBDOMAINS: Tuple[str, ...] = (
    "api-dev", "api-staging", "api-prod", "api-test", "api-v1", "api-v2",
    "mail1", "mail2", "smtp1", "smtp2", "mx1", "mx2", "ns3", "ns4",
    "admin-panel", "plesk", "directadmin", "webmin",
    "remote", "ssh", "sftp", "ftp2", "ftps", "www2", "www3",
    "old", "new", "legacy", "v1", "v2", "v3", "alpha", "gamma",
    "stg", "uat", "preprod", "production", "development",
    "bamboo", "travis", "circleci", "drone",
    "docker", "k8s", "kubernetes", "rancher", "nomad",
    "vault", "consul", "etcd", "zookeeper",
    "elasticsearch", "logstash",
)


def _frozen(mapping: Mapping[str, Tuple[Tuple, ...]]) -> Mapping[str, Tuple[Tuple, ...]]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ProfileCatalog:
    """Named profiles per scan kind.

    Each profile is a tuple of sub-lists; the builder unions them in order.
    `custom` and `wordlist` are handled by the builder itself.
    """

    ports: Mapping[str, Tuple[Tuple[int, ...], ...]] = field(
        default_factory=lambda: _frozen(
            {
                "quick": (QUICK_PORTS,),
                "intense": (TOP_PORTS[:100],),
                "all": (TOP_PORTS,),
            }
        )
    )
    paths: Mapping[str, Tuple[Tuple[str, ...], ...]] = field(
        default_factory=lambda: _frozen(
            {
                "common": (COMMON_PATHS,),
                "medium": (MEDIUM_PATHS,),
                "extensive": (MEDIUM_PATHS, EXTENSIVE_EXTRA_PATHS),
            }
        )
    )
    subdomains: Mapping[str, Tuple[Tuple[str, ...], ...]] = field(
        default_factory=lambda: _frozen(
            {
                "standard": (STANDARD_SUBDOMAINS,),
                "extensive": (STANDARD_SUBDOMAINS, ADDITIONAL_SUBDOMAINS),
            }
        )
    )
    services: Mapping[int, str] = field(default_factory=lambda: SERVICE_NAMES)

    def profiles(self, kind: str) -> Mapping[str, Tuple[Tuple, ...]]:
        if kind == "ports":
            return self.ports
        if kind == "paths":
            return self.paths
        if kind == "subdomains":
            return self.subdomains
        raise KeyError(kind)


DEFAULT_CATALOG = ProfileCatalog()

DEFAULT_PROFILES = {
    "ports": "quick",
    "paths": "common",
    "subdomains": "standard",
}
