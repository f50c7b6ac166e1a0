"""GeoLive Processing Modules

This package contains the processing modules built on the GeoLive framework
core. Each module consumes the store interfaces from geolive_core and exposes
its own public API.
"""
