from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('tracker', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='trackeduser',
            name='rating_history',
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.AddField(
            model_name='trackeduser',
            name='rating_history_updated',
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
