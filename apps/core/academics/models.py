from django.core.exceptions import ValidationError
from django.db import models


class Course(models.Model):
    name = models.CharField(max_length=120)  # e.g. B.Com, B.Sc IT
    code = models.CharField(max_length=20, blank=True)
    duration_years = models.PositiveSmallIntegerField(default=3)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name', 'id']
        constraints = [
            models.UniqueConstraint(fields=['name'], name='unique_course_name'),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({'name': 'Course name is required.'})

    def delete(self, *args, **kwargs):
        if self.is_active:
            self.is_active = False
            self.save(update_fields=['is_active'])

    def __str__(self):
        return self.name
