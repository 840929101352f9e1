from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("metrics", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DailyVisitor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.CharField(max_length=10)),
                ("uid", models.CharField(max_length=64)),
                ("first_at", models.DateTimeField()),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("day", "uid"), name="uniq_visitor_per_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AnalyticsEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(max_length=20)),
                ("page", models.CharField(max_length=20)),
                ("src", models.CharField(blank=True, max_length=120, null=True)),
                ("uid", models.CharField(blank=True, max_length=64, null=True)),
                ("at", models.DateTimeField(db_index=True)),
            ],
        ),
    ]
