import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('fullname', models.CharField(max_length=200)),
                ('roll_number', models.CharField(blank=True, max_length=30, null=True)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('status', models.CharField(choices=[('active', 'Active'), ('passed', 'Passed'), ('dropped', 'Dropped')], default='active', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['fullname', 'id'],
                'indexes': [models.Index(fields=['status'], name='student_status_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('roll_number__isnull', False)), fields=('roll_number',), name='unique_student_roll_number'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StudentAcademicYear',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('academic_year_name', models.CharField(max_length=50)),
                ('academic_year_session', models.CharField(max_length=20)),
                ('is_current', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('course', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='student_academic_years', to='academics.course')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='academic_years', to='students.student')),
            ],
            options={
                'ordering': ['-academic_year_session', '-id'],
                'constraints': [
                    models.UniqueConstraint(fields=('student', 'academic_year_session', 'academic_year_name'), name='unique_student_year_per_session'),
                ],
            },
        ),
    ]
