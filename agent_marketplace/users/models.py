from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.db.models import EmailField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for agent_marketplace.

    ``role`` drives marketplace permissions: admins bypass chat ownership
    checks and receive the shared ``admin`` realtime broadcasts, sellers may
    publish agent status updates.
    """

    class Role(models.TextChoices):
        BUYER = "BUYER", _("Buyer")
        SELLER = "SELLER", _("Seller")
        ADMIN = "ADMIN", _("Admin")

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Full Name"), blank=True, max_length=255)
    email = EmailField(_("email address"), unique=True)
    first_name = CharField(_("First Name"), max_length=150, blank=True)
    last_name = CharField(_("Last Name"), max_length=150, blank=True)
    image = models.URLField(_("Avatar URL"), max_length=500, blank=True, default="")
    role = CharField(
        _("Role"),
        max_length=20,
        choices=Role.choices,
        default=Role.BUYER,
    )
    # Audit timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        # Keep an explicitly provided name when first/last are empty
        full_name = f"{self.first_name} {self.last_name}".strip()
        if full_name:
            self.name = full_name
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.name or self.username

    @property
    def is_marketplace_admin(self) -> bool:
        return self.role == self.Role.ADMIN
