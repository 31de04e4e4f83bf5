from django.db import migrations, models


_PRICE_TYPES = [("fixed", "Fixed amount"), ("percentage", "Percentage of course price")]


class Migration(migrations.Migration):

    dependencies = [
        ("courses", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="courseversion",
            name="upgrade_price_type",
            field=models.CharField(blank=True, choices=_PRICE_TYPES, max_length=16),
        ),
        migrations.AddField(
            model_name="courseversion",
            name="upgrade_price_value",
            field=models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True),
        ),
        migrations.AddField(
            model_name="courseversion",
            name="upgrade_discount_type",
            field=models.CharField(blank=True, choices=_PRICE_TYPES, max_length=16),
        ),
        migrations.AddField(
            model_name="courseversion",
            name="upgrade_discount_value",
            field=models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True),
        ),
        migrations.AddField(
            model_name="courseversion",
            name="upgrade_discount_start",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="courseversion",
            name="upgrade_discount_end",
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
