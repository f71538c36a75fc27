# iplocate
# Durable IP geolocation workflows on Temporal

__version__ = "0.1.0"
