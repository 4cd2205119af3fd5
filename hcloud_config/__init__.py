"""hcloud-config: declarative Hetzner Cloud configuration compiler.

Reads one ``hcloud.yml`` describing servers, ssh keys, volumes and
container services, and renders it into terraform files, one
docker-compose manifest per server and one nginx reverse-proxy config per
server.
"""

try:
    from importlib.metadata import version

    __version__ = version("hcloud-config")
except Exception:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
