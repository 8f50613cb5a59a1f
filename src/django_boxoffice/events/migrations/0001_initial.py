from django.db import migrations, models
from encrypted_fields import EncryptedCharField


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200, unique=True)),
                ("starts_at", models.DateTimeField(blank=True, null=True)),
                ("venue", models.CharField(blank=True, default="", max_length=300)),
                (
                    "payment_model",
                    models.CharField(
                        choices=[
                            ("prepay", "Prepaid (organizer bought ticket credits)"),
                            ("pass_through", "Pass-through (buyer pays fees)"),
                        ],
                        default="pass_through",
                        max_length=20,
                    ),
                ),
                (
                    "charity_discount",
                    models.BooleanField(default=False, help_text="Halves the platform fee for registered charities."),
                ),
                (
                    "low_price_discount",
                    models.BooleanField(default=False, help_text="Halves the platform fee for low-price events."),
                ),
                ("accepts_card", models.BooleanField(default=True)),
                ("accepts_paypal", models.BooleanField(default=False)),
                ("accepts_cash", models.BooleanField(default=True)),
                ("stripe_secret_key", EncryptedCharField(blank=True, default=None, max_length=200, null=True)),
                ("stripe_publishable_key", EncryptedCharField(blank=True, default=None, max_length=200, null=True)),
                ("stripe_webhook_secret", EncryptedCharField(blank=True, default=None, max_length=200, null=True)),
                (
                    "stripe_account_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Connected account that receives the payout. Empty means the platform account.",
                        max_length=100,
                    ),
                ),
                ("paypal_client_id", EncryptedCharField(blank=True, default=None, max_length=200, null=True)),
                ("paypal_client_secret", EncryptedCharField(blank=True, default=None, max_length=200, null=True)),
                ("paypal_merchant_id", models.CharField(blank=True, default="", max_length=100)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-starts_at", "name"],
            },
        ),
    ]
