"""Fixed names and defaults shared across wp-cloner."""

DEFAULT_DESTINATION = "~/ProjectFiles/wordpress"
DEFAULT_PRODUCTION_USER = "fly"
DEFAULT_SSH_CONFIG = "~/.ssh/config"
DEFAULT_COMMAND_TIMEOUT = 120.0
DEFAULT_TRANSFER_TIMEOUT = 3600.0
DEFAULT_READY_TIMEOUT = 120.0
DEFAULT_READY_INTERVAL = 2.0
DEFAULT_RETRY_COUNT = 1
DEFAULT_LSAPI_CHILDREN = 35

LOCAL_DOMAIN_PREFIX = "local-"
PRODUCTION_CONTAINER_SUFFIX = "-openlitespeed-1"
SNAPSHOT_TAG = "snapshot"

ENV_FILE_NAME = ".env"
ROOT_PASSWORD_KEY = "MYSQL_ROOT_PASSWORD"
REQUIRED_CONTAINERS = ("nginx-proxy", "mysql", "redis")
REQUIRED_NETWORKS = ("wordpress-sites", "db-network")
TUNNEL_CONTAINER = "cloudflared"

DB_CONTAINER = "mysql"
FALLBACK_COLLATION = "utf8mb4_unicode_520_ci"

COMPOSE_FILE_NAME = "docker-compose.yml"
COMPOSE_SERVICE = "openlitespeed"
SITE_NETWORK_ALIAS = "site-network"
PROXY_NETWORK = "wordpress-sites"
DB_NETWORK = "db-network"
VIRTUAL_PORT = 8080
CRON_SCHEDULE = "@every 10m"
CRON_USER = "www-data"

WP_PATH = "/var/www/html/public"
WP_CONFIG_RELPATH = "app/wp-config.php"
SERVER_CONFIG_RELPATH = "config/ols/httpd_config.conf"
LSAPI_CHILDREN_SETTING = "PHP_LSAPI_CHILDREN"
PRODUCTION_LSAPI_CHILDREN = 10
OBJECT_CACHE_OPTION = "litespeed.conf.object"

TOTAL_STEPS = 14
