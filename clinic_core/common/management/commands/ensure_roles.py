# clinic_core/common/management/commands/ensure_roles.py

from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from clinic_core.common.permissions import ALL_ROLES


class Command(BaseCommand):
    help = "Create the clinic role groups (DOCTOR, NURSE, LAB, ...) that are missing. Safe to re-run."

    def handle(self, *args, **options):
        created = [name for name in sorted(ALL_ROLES) if Group.objects.get_or_create(name=name)[1]]

        for name in created:
            self.stdout.write(f"  + {name}")
        self.stdout.write(self.style.SUCCESS(f"Roles ensured. Newly created: {len(created)}"))
