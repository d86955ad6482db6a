import requests

import config

# Reuse HTTP connections to Wikimedia (connection pooling)
http_session = requests.Session()
http_session.headers.update({'User-Agent': config.USER_AGENT})
