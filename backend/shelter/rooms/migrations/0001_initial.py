import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("room_id", models.UUIDField(db_index=True, default=uuid.uuid4, unique=True)),
                ("members", models.JSONField(default=list)),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "open"), ("closed", "closed")],
                        default="open",
                        max_length=10,
                    ),
                ),
                ("queue_key", models.CharField(max_length=20)),
                ("is_owner_room", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("expire_at", models.DateTimeField(db_index=True)),
                ("ended_at", models.DateTimeField(blank=True, null=True)),
                ("closed_reason", models.CharField(blank=True, default="", max_length=20)),
                ("closed_by", models.CharField(blank=True, default="", max_length=64)),
                ("last_left_at", models.DateTimeField(blank=True, null=True)),
                ("left_by", models.JSONField(blank=True, default=list)),
                ("profiles", models.JSONField(blank=True, default=dict)),
                ("stats_committed_at", models.DateTimeField(blank=True, null=True)),
                ("message_count", models.IntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(max_length=64)),
                ("text", models.TextField()),
                ("system", models.BooleanField(default=False)),
                ("kind", models.CharField(blank=True, default="", max_length=20)),
                ("key", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="rooms.room",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.AddConstraint(
            model_name="message",
            constraint=models.UniqueConstraint(fields=("room", "key"), name="uniq_message_key_per_room"),
        ),
    ]
