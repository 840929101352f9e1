import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("rooms", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="MatchEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entry_id", models.UUIDField(db_index=True, default=uuid.uuid4, unique=True)),
                ("uid", models.CharField(db_index=True, max_length=64)),
                ("queue_key", models.CharField(max_length=20)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("queued", "queued"),
                            ("matched", "matched"),
                            ("canceled", "canceled"),
                            ("expired", "expired"),
                            ("stale", "stale"),
                        ],
                        default="queued",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_seen_at", models.DateTimeField(blank=True, null=True)),
                ("expires_at", models.DateTimeField(db_index=True)),
                ("matched_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("profile", models.JSONField(blank=True, default=dict)),
                ("info", models.CharField(blank=True, default="", max_length=20)),
                (
                    "room",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="entries",
                        to="rooms.room",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["queue_key", "status", "id"], name="match_entry_queue_idx"),
                    models.Index(fields=["uid", "status"], name="match_entry_uid_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PairHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.CharField(max_length=10)),
                ("pair_key", models.CharField(max_length=140)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("expire_at", models.DateTimeField(db_index=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("day", "pair_key"), name="uniq_pair_per_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WeatherDiag",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(max_length=64)),
                ("lat", models.FloatField(blank=True, null=True)),
                ("lon", models.FloatField(blank=True, null=True)),
                ("region", models.CharField(blank=True, default="", max_length=120)),
                ("mode", models.CharField(max_length=10)),
                ("ok", models.BooleanField(default=True)),
                ("error", models.TextField(blank=True, default="")),
                ("at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
        ),
    ]
