"""packhub - pack and asset distribution server."""
