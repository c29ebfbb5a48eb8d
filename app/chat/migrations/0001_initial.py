import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("conversation_type", models.CharField(choices=[("direct", "Direct Message"), ("group", "Group")], db_index=True, default="group", help_text="Type of conversation (direct or group)", max_length=10)),
                ("name", models.CharField(blank=True, default="", help_text="Group name (empty for direct)", max_length=100)),
                ("description", models.CharField(blank=True, default="", help_text="Group description (empty for direct)", max_length=500)),
                ("domain", models.CharField(blank=True, choices=[("technology", "Technology"), ("banking", "Banking"), ("consulting", "Consulting"), ("startups", "Startups"), ("government", "Government"), ("design", "Design"), ("research", "Research"), ("general", "General")], default="", help_text="Professional domain of a group (empty for direct)", max_length=20)),
                ("is_active", models.BooleanField(db_index=True, default=True, help_text="Inactive conversations are hidden and accept no messages")),
                ("participant_count", models.PositiveIntegerField(default=0, help_text="Current number of active participants (cached for performance)")),
                ("last_message_content", models.TextField(blank=True, default="", help_text="Content of the newest visible message")),
                ("last_message_at", models.DateTimeField(blank=True, help_text="Timestamp of the newest visible message", null=True)),
                ("admin", models.ForeignKey(blank=True, help_text="Group admin (null for direct conversations)", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="administered_conversations", to=settings.AUTH_USER_MODEL)),
                ("last_message_sender", models.ForeignKey(blank=True, help_text="Sender of the newest visible message", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-updated_at", "-id"],
                "indexes": [
                    models.Index(condition=models.Q(("is_active", True)), fields=["-updated_at"], name="chat_conv_activity_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DirectConversationPair",
            fields=[
                ("conversation", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name="direct_pair", serialize=False, to="chat.conversation")),
                ("user_lower", models.ForeignKey(help_text="User with lower ID in this conversation pair", on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("user_higher", models.ForeignKey(help_text="User with higher ID in this conversation pair", on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_direct_conversation_pair",
                "constraints": [
                    models.UniqueConstraint(fields=("user_lower", "user_higher"), name="unique_direct_conversation_pair"),
                    models.CheckConstraint(condition=models.Q(("user_lower_id__lt", models.F("user_higher_id"))), name="user_lower_less_than_higher"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Participant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("joined_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("left_at", models.DateTimeField(blank=True, db_index=True, help_text="When the user left (null if still active)", null=True)),
                ("left_voluntarily", models.BooleanField(blank=True, help_text="True if user left voluntarily, False if removed by the admin", null=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="participants", to="chat.conversation")),
                ("removed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="removed_participants", to=settings.AUTH_USER_MODEL)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="conversation_participations", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_participant",
                "ordering": ["joined_at", "id"],
                "indexes": [
                    models.Index(fields=["conversation", "left_at"], name="chat_part_conv_active_idx"),
                    models.Index(fields=["user", "left_at"], name="chat_part_user_active_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("left_at__isnull", True)), fields=("conversation", "user"), name="unique_active_participation"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_deleted", models.BooleanField(db_index=True, default=False, help_text="Whether this record has been soft deleted")),
                ("deleted_at", models.DateTimeField(blank=True, help_text="Timestamp when this record was soft deleted", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("message_type", models.CharField(choices=[("text", "Text"), ("image", "Image"), ("file", "File"), ("link", "Link")], default="text", max_length=10)),
                ("content", models.CharField(max_length=1000)),
                ("attachments", models.JSONField(blank=True, default=list, help_text="Attachment metadata: [{public_id, url, file_name, file_size}]")),
                ("is_edited", models.BooleanField(default=False)),
                ("edited_at", models.DateTimeField(blank=True, null=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="chat.conversation")),
                ("sender", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sent_messages", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["conversation", "created_at", "id"], name="chat_msg_conv_order_idx"),
                    models.Index(fields=["sender", "-created_at"], name="chat_msg_sender_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MessageReadReceipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("read_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("message", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="read_receipts", to="chat.message")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="message_read_receipts", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_message_read_receipt",
                "ordering": ["read_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("message", "user"), name="unique_message_read_receipt"),
                ],
            },
        ),
    ]
