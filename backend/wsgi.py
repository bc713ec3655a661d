# Overview: WSGI entry point used by `flask --app wsgi` and production servers.

from lottoledger import create_app

app = create_app()
