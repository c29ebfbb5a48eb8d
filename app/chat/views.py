"""
ViewSets for the messaging API.

URL Structure:
    /api/v1/conversations/                                GET, POST
    /api/v1/conversations/group/                          POST
    /api/v1/conversations/{id}/                           GET
    /api/v1/conversations/{id}/messages/                  POST
    /api/v1/conversations/{id}/messages/{message_id}/     DELETE
    /api/v1/conversations/{id}/read/                      PUT
    /api/v1/conversations/{id}/group/                     PUT
    /api/v1/conversations/{id}/leave/                     DELETE
    /api/v1/conversations/{id}/members/                   POST
    /api/v1/conversations/{id}/members/{member_id}/       DELETE

Design Decisions:
    - Views only parse the request, call the service layer and render
    - Failed ServiceResults are raised as core exceptions so the project
      exception handler picks the HTTP status from the error code
    - Mutating views build a notifier from the channel layer and hand it to
      the service, which pushes realtime events after commit
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import exception_for_error_code
from core.services import ServiceResult

from chat.notifier import get_notifier
from chat.serializers import (
    ConversationDetailSerializer,
    ConversationListSerializer,
    DirectConversationCreateSerializer,
    GroupConversationCreateSerializer,
    GroupUpdateSerializer,
    MemberAddSerializer,
    MessageCreateSerializer,
)
from chat.services import (
    ConversationService,
    MessageService,
    ParticipantService,
)


def _unwrap(result: ServiceResult):
    """Return the result's data or raise the matching application error."""
    if not result.success:
        raise exception_for_error_code(result.error, result.error_code, result.errors)
    return result.data


class ConversationViewSet(viewsets.ViewSet):
    """
    Conversations of the authenticated user.

    list:
        Active conversations, most recent activity first, with participants,
        last message preview and unread count.

    create:
        Get or create the direct conversation with another user.
        201 when created, 200 when it already existed.

    retrieve:
        Conversation detail with every visible message and its read receipts.

    group:
        Create a group conversation. The caller becomes its admin.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def _detail_response(self, request, conversation_id, status_code=status.HTTP_200_OK):
        conversation = _unwrap(
            ConversationService.get_detail(request.user, conversation_id)
        )
        serializer = ConversationDetailSerializer(
            conversation, context={"request": request}
        )
        return Response(serializer.data, status=status_code)

    @extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        responses={200: ConversationListSerializer(many=True)},
        tags=["Conversations"],
    )
    def list(self, request):
        conversations = ConversationService.list_for_user(request.user)
        serializer = ConversationListSerializer(
            conversations, many=True, context={"request": request}
        )
        return Response(serializer.data)

    @extend_schema(
        operation_id="create_direct_conversation",
        summary="Get or create direct conversation",
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationDetailSerializer,
            201: ConversationDetailSerializer,
        },
        tags=["Conversations"],
    )
    def create(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation, created = _unwrap(
            ConversationService.create_direct(
                request.user, serializer.validated_data["user_id"]
            )
        )
        return self._detail_response(
            request,
            conversation.id,
            status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={200: ConversationDetailSerializer},
        tags=["Conversations"],
    )
    def retrieve(self, request, pk=None):
        return self._detail_response(request, int(pk))

    @extend_schema(
        operation_id="create_group_conversation",
        summary="Create group conversation",
        request=GroupConversationCreateSerializer,
        responses={201: ConversationDetailSerializer},
        tags=["Conversations"],
    )
    @action(detail=False, methods=["post"], url_path="group")
    def create_group(self, request):
        serializer = GroupConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        conversation = _unwrap(
            ConversationService.create_group(
                creator=request.user,
                name=data["name"],
                member_ids=data["member_ids"],
                description=data.get("description", ""),
                domain=data.get("domain", ""),
            )
        )
        return self._detail_response(
            request, conversation.id, status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="update_group_conversation",
        summary="Update group name or description",
        request=GroupUpdateSerializer,
        responses={200: ConversationDetailSerializer},
        tags=["Conversations"],
    )
    @action(detail=True, methods=["put"], url_path="group")
    def update_group(self, request, pk=None):
        serializer = GroupUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation = _unwrap(
            ConversationService.update_group(
                int(pk),
                request.user,
                name=serializer.validated_data.get("name"),
                description=serializer.validated_data.get("description"),
                notifier=get_notifier(),
            )
        )
        return self._detail_response(request, conversation.id)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=None,
        responses={200: OpenApiTypes.OBJECT},
        tags=["Conversations"],
    )
    @action(detail=True, methods=["put"])
    def read(self, request, pk=None):
        marked = _unwrap(MessageService.mark_as_read(int(pk), request.user))
        return Response({"marked_read": marked})

    @extend_schema(
        operation_id="leave_group_conversation",
        summary="Leave group conversation",
        request=None,
        responses={204: OpenApiResponse(description="Left the group")},
        tags=["Conversations"],
    )
    @action(detail=True, methods=["delete"])
    def leave(self, request, pk=None):
        _unwrap(
            ParticipantService.leave_group(
                int(pk), request.user, notifier=get_notifier()
            )
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={201: ConversationDetailSerializer},
        tags=["Messages"],
    )
    @action(detail=True, methods=["post"])
    def messages(self, request, pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        _unwrap(
            MessageService.send_message(
                int(pk),
                request.user,
                data["content"],
                message_type=data["message_type"],
                attachments=data.get("attachments") or [],
                notifier=get_notifier(),
            )
        )
        return self._detail_response(request, int(pk), status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="delete_message",
        summary="Delete own message",
        request=None,
        responses={204: OpenApiResponse(description="Message deleted")},
        tags=["Messages"],
    )
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"messages/(?P<message_id>\d+)",
    )
    def delete_message(self, request, pk=None, message_id=None):
        _unwrap(
            MessageService.delete_message(
                int(pk), int(message_id), request.user, notifier=get_notifier()
            )
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="add_group_member",
        summary="Add group member",
        request=MemberAddSerializer,
        responses={201: ConversationDetailSerializer},
        tags=["Conversations"],
    )
    @action(detail=True, methods=["post"])
    def members(self, request, pk=None):
        serializer = MemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        _unwrap(
            ParticipantService.add_member(
                int(pk),
                request.user,
                serializer.validated_data["user_id"],
                notifier=get_notifier(),
            )
        )
        return self._detail_response(request, int(pk), status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="remove_group_member",
        summary="Remove group member",
        request=None,
        responses={200: ConversationDetailSerializer},
        tags=["Conversations"],
    )
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"members/(?P<member_id>\d+)",
    )
    def remove_member(self, request, pk=None, member_id=None):
        _unwrap(
            ParticipantService.remove_member(
                int(pk), request.user, int(member_id), notifier=get_notifier()
            )
        )
        return self._detail_response(request, int(pk))
