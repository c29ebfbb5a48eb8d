"""
URL configuration for the messaging API.

URL Structure:
    /conversations/                                  GET, POST
    /conversations/group/                            POST
    /conversations/{id}/                             GET
    /conversations/{id}/messages/                    POST
    /conversations/{id}/messages/{message_id}/       DELETE
    /conversations/{id}/read/                        PUT
    /conversations/{id}/group/                       PUT
    /conversations/{id}/leave/                       DELETE
    /conversations/{id}/members/                     POST
    /conversations/{id}/members/{member_id}/         DELETE

All URLs are prefixed with /api/v1/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ConversationViewSet

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
]
