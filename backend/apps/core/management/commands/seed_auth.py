"""
seed_auth - Management command to seed authentication data.

Creates/updates Django users and their ``users`` role rows for the three
portal roles. This command is idempotent - safe to run multiple times.

Usage:
    python manage.py seed_auth

Users created (password == local part of the email):
    - staff@recheck.local (Staff)
    - reviewer@recheck.local (Reviewer)
    - researcher@recheck.local (Researcher)
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from apps.core.models import UserAccount


class Command(BaseCommand):
    help = 'Seed demo accounts and roles for the RECheck portal'

    USERS = [
        {'email': 'staff@recheck.local', 'role': 'Staff', 'first_name': 'Maria', 'last_name': 'Santos'},
        {'email': 'reviewer@recheck.local', 'role': 'Reviewer', 'first_name': 'Jose', 'last_name': 'Reyes'},
        {'email': 'researcher@recheck.local', 'role': 'Researcher', 'first_name': 'Ana', 'last_name': 'Cruz'},
    ]

    def add_arguments(self, parser):
        parser.add_argument(
            '--password',
            help='Use one password for every seeded account instead of the email local part',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING('Seeding authentication data...'))
        User = get_user_model()

        for user_info in self.USERS:
            email = user_info['email']
            password = options.get('password') or email.split('@')[0]

            user, created = User.objects.get_or_create(
                username=email,
                defaults={
                    'email': email,
                    'first_name': user_info['first_name'],
                    'last_name': user_info['last_name'],
                }
            )
            if not created:
                user.email = email
                user.first_name = user_info['first_name']
                user.last_name = user_info['last_name']
            user.set_password(password)
            user.is_staff = user_info['role'] == 'Staff'
            user.save()

            UserAccount.objects.update_or_create(
                email=email,
                defaults={
                    'full_name': f"{user_info['first_name']} {user_info['last_name']}",
                    'role': user_info['role'],
                    'user': user,
                }
            )

            action = 'Created' if created else 'Updated'
            self.stdout.write(f'   {action} user: {email} ({user_info["role"]})')

        self.stdout.write(self.style.SUCCESS('\nAuthentication seeding complete!'))
        self.stdout.write('-' * 50)
        self.stdout.write(f'{"Email":<28} {"Role":<12}')
        self.stdout.write('-' * 50)
        for user_info in self.USERS:
            self.stdout.write(f'{user_info["email"]:<28} {user_info["role"]:<12}')
        self.stdout.write('-' * 50)
