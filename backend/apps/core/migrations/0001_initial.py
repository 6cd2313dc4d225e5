from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserAccount',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(help_text='Login email, used as the role lookup key', max_length=254, unique=True)),
                ('full_name', models.CharField(blank=True, default='', help_text='Display name, also used to match legacy reported_by values', max_length=200)),
                ('role', models.CharField(choices=[('Staff', 'Staff'), ('Reviewer', 'Reviewer'), ('Researcher', 'Researcher')], help_text='Portal role: Staff, Reviewer or Researcher', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(blank=True, help_text='Linked Django auth user, when one exists', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='account', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'User Account',
                'verbose_name_plural': 'User Accounts',
                'db_table': 'users',
                'ordering': ['email'],
            },
        ),
    ]
