"""SystemSetting model: key/value business configuration."""

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils.translation import gettext_lazy as _


class SystemSetting(models.Model):
    """
    Key/value configuration blob.

    Read through a ConfigProvider into a ConfigSnapshot; written only by
    SettingsService (or the admin).
    """

    key = models.CharField(_("key"), max_length=100, unique=True)
    value = models.JSONField(_("value"), default=dict, blank=True, encoder=DjangoJSONEncoder)
    description = models.CharField(_("description"), max_length=255, blank=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("system setting")
        verbose_name_plural = _("system settings")
        ordering = ["key"]

    def __str__(self):
        return self.key
