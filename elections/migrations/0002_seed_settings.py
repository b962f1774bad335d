from django.db import migrations


def seed_settings(apps, schema_editor):
    Setting = apps.get_model('elections', 'Setting')
    # The singleton always lives at pk 1
    if not Setting.objects.filter(pk=1).exists():
        Setting.objects.create(pk=1)


def remove_settings(apps, schema_editor):
    Setting = apps.get_model('elections', 'Setting')
    Setting.objects.filter(pk=1).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('elections', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_settings, remove_settings),
    ]
