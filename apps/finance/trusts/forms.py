from django import forms
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.core.academics.models import Course
from apps.core.fees.services import active_fee_type_names
from apps.core.students.models import Student, StudentAcademicYear

from .models import Trust, TrustTransaction
from .reports import TransactionFilters


class TrustForm(forms.ModelForm):
    class Meta:
        model = Trust
        fields = ['name', 'details']
        widgets = {
            'details': forms.Textarea(attrs={'rows': 3, 'placeholder': 'Contact info, purpose, etc.'}),
        }


class TrustChoiceField(forms.ModelChoiceField):
    def label_from_instance(self, obj):
        return f"{obj.name} (Balance: {obj.balance})"


class TrustInflowForm(forms.Form):
    trust = TrustChoiceField(queryset=Trust.objects.none())
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0.01)
    notes = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}), required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['trust'].queryset = Trust.objects.order_by('name', 'id')


class AcademicYearChoiceField(forms.ModelChoiceField):
    def label_from_instance(self, obj):
        return obj.full_label


class TrustOutflowForm(forms.Form):
    trust = TrustChoiceField(queryset=Trust.objects.none())
    student = forms.ModelChoiceField(queryset=Student.objects.all(), widget=forms.HiddenInput)
    academic_year = AcademicYearChoiceField(queryset=StudentAcademicYear.objects.none())
    fees_type = forms.ChoiceField(choices=())
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0.01)
    notes = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}), required=False)

    def __init__(self, *args, **kwargs):
        self.student = kwargs.pop('student', None)
        super().__init__(*args, **kwargs)

        self.fields['trust'].queryset = Trust.objects.order_by('name', 'id')
        self.fields['fees_type'].choices = [('', 'Select fees type')] + [
            (name, name) for name in active_fee_type_names()
        ]

        student_id = None
        if self.is_bound:
            student_id = self.data.get('student')
        elif self.student:
            student_id = self.student.pk
            self.initial.setdefault('student', self.student.pk)

        if student_id and str(student_id).isdigit():
            years = StudentAcademicYear.objects.filter(student_id=int(student_id)).select_related('course')
            years = years.order_by('-academic_year_session', '-id')
            self.fields['academic_year'].queryset = years
            if not self.is_bound:
                latest = years.first()
                if latest:
                    self.initial.setdefault('academic_year', latest.pk)

    def clean(self):
        cleaned = super().clean()
        trust = cleaned.get('trust')
        amount = cleaned.get('amount')
        student = cleaned.get('student')
        academic_year = cleaned.get('academic_year')

        if student and academic_year and academic_year.student_id != student.pk:
            raise ValidationError('Academic year does not belong to selected student.')
        # Early feedback only; the ledger re-checks the balance atomically.
        if trust and amount and amount > trust.balance:
            raise ValidationError(f"Amount exceeds trust's available balance of {trust.balance}.")
        return cleaned


class StudentSearchForm(forms.Form):
    q = forms.CharField(max_length=100, required=False, label='Search student')


class TransactionFilterForm(forms.Form):
    date_from = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    date_to = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    trust = forms.ModelChoiceField(queryset=Trust.objects.none(), required=False, empty_label='All trusts')
    course = forms.ModelChoiceField(queryset=Course.objects.none(), required=False, empty_label='All courses')
    type = forms.ChoiceField(
        choices=(('', 'All types'),) + TrustTransaction.TYPE_CHOICES,
        required=False,
    )
    q = forms.CharField(max_length=100, required=False, label='Search by student name or roll')

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['trust'].queryset = Trust.objects.order_by('name', 'id')
        self.fields['course'].queryset = Course.objects.order_by('name', 'id')

    @staticmethod
    def default_range():
        today = timezone.localdate()
        return today.replace(day=1), today

    def clean(self):
        cleaned = super().clean()
        date_from = cleaned.get('date_from')
        date_to = cleaned.get('date_to')
        if date_from and date_to and date_from > date_to:
            raise ValidationError('Start date must be on or before end date.')
        return cleaned

    def to_filters(self) -> TransactionFilters:
        cleaned = self.cleaned_data
        trust = cleaned.get('trust')
        course = cleaned.get('course')
        return TransactionFilters(
            trust_id=trust.pk if trust else None,
            course_id=course.pk if course else None,
            type=cleaned.get('type') or None,
            date_from=cleaned.get('date_from'),
            date_to=cleaned.get('date_to'),
            search=cleaned.get('q') or '',
        )
