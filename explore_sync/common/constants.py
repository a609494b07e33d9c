"""Shared constants for the explore sync client."""

DEFAULT_SERVER_URL = "http://localhost:3000"

# Room every client falls back to when no space is selected or membership is denied
DEFAULT_ROOM_ID = "world"

# Spawn tile used when a player record carries no coordinates
DEFAULT_SPAWN_X = 11
DEFAULT_SPAWN_Y = 11

# Remote avatar movement defaults
DEFAULT_MOVE_SPEED = 4
DEFAULT_MOVE_FREQUENCY = 3

# Tile grid
TILE_LAYERS = 4
DEFAULT_GRID_WIDTH = 24
DEFAULT_GRID_HEIGHT = 24

# Tile ids and coordinates are stored as signed 32-bit integers
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# REST
API_PREFIX = "/api/explore"
REQUEST_TIMEOUT = 10.0

AUTH_TOKEN_ENV = "EXPLORE_AUTH_TOKEN"

MEMBERSHIP_REQUIRED = "Membership required"
