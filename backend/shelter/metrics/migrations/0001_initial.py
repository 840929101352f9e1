from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DailyCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.CharField(max_length=10)),
                ("name", models.CharField(max_length=64)),
                ("value", models.BigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("day", "name"), name="uniq_counter_per_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RoomAudit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("room_id", models.UUIDField(unique=True)),
                ("is_owner_room", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(blank=True, null=True)),
                ("ended_at", models.DateTimeField()),
                ("duration_sec", models.IntegerField(default=0)),
                ("closed_reason", models.CharField(default="unknown", max_length=20)),
                ("day", models.CharField(max_length=10)),
                ("committed_at", models.DateTimeField()),
            ],
        ),
    ]
