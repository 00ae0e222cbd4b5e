"""Application keys for type-safe app configuration access."""

from aiohttp import web

from scriptpages.config import Config
from scriptpages.core.renderer import PageRenderer

config_key = web.AppKey("config", Config)
renderer_key = web.AppKey("renderer", PageRenderer)
