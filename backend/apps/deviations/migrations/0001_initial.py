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
            name='DeviationReport',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('protocol_title', models.CharField(max_length=300)),
                ('protocol_code', models.CharField(max_length=100)),
                ('type', models.CharField(choices=[('Informed Consent', 'Informed Consent'), ('Adverse Events', 'Adverse Events'), ('Sample Collection', 'Sample Collection'), ('Confidentiality Breach', 'Confidentiality Breach'), ('Regulatory Compliance', 'Regulatory Compliance'), ('Other', 'Other')], max_length=100)),
                ('deviation_date', models.DateField()),
                ('deviation_description', models.TextField()),
                ('rationale', models.TextField()),
                ('impact', models.TextField()),
                ('corrective_action', models.TextField(help_text='Corrective action proposed by the reporter')),
                ('supporting_documents', models.JSONField(blank=True, default=list)),
                ('reported_by', models.CharField(db_index=True, help_text='Free-text reporter identifier (email, name or email local part)', max_length=255)),
                ('report_submission_date', models.DateField()),
                ('severity', models.CharField(blank=True, choices=[('Minor', 'Minor'), ('Major', 'Major')], default='', max_length=20)),
                ('review', models.TextField(blank=True, default='', help_text='Minor-path feedback')),
                ('corrective_action_feedback', models.TextField(blank=True, default='')),
                ('corrective_action_required', models.CharField(blank=True, choices=[('changes', 'Changes required'), ('none', 'No changes required')], default='', max_length=20)),
                ('corrective_action_details', models.TextField(blank=True, default='')),
                ('corrective_action_docs', models.CharField(blank=True, choices=[('docs', 'Documents required'), ('none', 'No documents required')], default='', max_length=20)),
                ('corrective_action_docs_details', models.TextField(blank=True, default='')),
                ('corrective_action_deadline', models.DateField(blank=True, null=True)),
                ('status', models.CharField(blank=True, default='', max_length=50)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('resolution_status', models.CharField(blank=True, choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('resolved', 'Resolved'), ('rejected', 'Rejected')], db_index=True, default='', max_length=20)),
                ('researcher_response', models.TextField(blank=True, default='')),
                ('resolution_actions_taken', models.TextField(blank=True, default='')),
                ('resolution_notes', models.TextField(blank=True, default='')),
                ('resolution_supporting_documents', models.JSONField(blank=True, default=list)),
                ('resolution_submission_date', models.DateTimeField(blank=True, null=True)),
                ('staff_acknowledgment', models.TextField(blank=True, default='')),
                ('staff_acknowledgment_date', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reporter', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='deviation_reports', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Deviation Report',
                'verbose_name_plural': 'Deviation Reports',
                'db_table': 'deviation_reports',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['report_submission_date'], name='deviation_r_report__4b9e1f_idx'),
                    models.Index(fields=['severity', 'type'], name='deviation_r_severit_a2c7d3_idx'),
                ],
            },
        ),
    ]
