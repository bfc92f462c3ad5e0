"""Shared sample deployment data for tests."""

COMPOSE_FILE = """\
services:
  web:
    image: registry.local:5000/metro/web:1.2
    volumes:
      - web-data:/data
      - ./app-config:/etc/app:ro
    environment:
      - HOST_IP=${HOST_IP}
  broker:
    image: eclipse-mosquitto:2.0
    volumes:
      - broker-data:/mosquitto/data
  db:
    image: postgres:16
    volumes:
      - db-data:/var/lib/postgresql/data

volumes:
  web-data:
  broker-data:
  db-data:
    name: db-data
"""

ENV_FILE = "# deployment settings\nHOST_IP=192.168.1.10\nDB_PASSWORD=secret\n"

IMAGES = {
    "registry.local:5000/metro/web:1.2": "web-layers",
    "eclipse-mosquitto:2.0": "mosquitto-layers",
    "postgres:16": "postgres-layers",
}

VOLUMES = {
    "web-data": {"index.html": b"<h1>metro</h1>", "assets/logo.svg": b"<svg/>"},
    "broker-data": {"mosquitto.db": b"\x00\x01\x02"},
    "db-data": {"PG_VERSION": b"16\n"},
}

