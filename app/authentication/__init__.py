"""
User directory for the alumni network.

Holds the User model the messaging core reads display profiles and presence
from, and the JWT endpoints whose access tokens authenticate both the REST
API and the realtime socket.

Usage:
    from authentication.models import User
"""
