from dataclasses import replace
from decimal import Decimal

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404, redirect, render

from apps.core.students.models import Student
from apps.core.students.services import academic_years_for_student, search_students
from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.users.models import User

from .exceptions import ReferenceNotFound, StorageFailure
from .forms import (
    StudentSearchForm,
    TransactionFilterForm,
    TrustForm,
    TrustInflowForm,
    TrustOutflowForm,
)
from .models import Trust
from .reports import (
    detail_for_course,
    filter_transactions,
    load_transaction_rows,
    running_balance,
    summarize_by_course,
    summarize_by_trust,
)
from .services import apply_inflow, apply_outflow, create_trust, list_trusts
from .submit_tokens import consume_token, issue_token


LEDGER_ROLES = User.LEDGER_ROLES


@login_required
@role_required(LEDGER_ROLES)
def trust_manage(request):
    if request.method == 'POST':
        form = TrustForm(request.POST)
        if form.is_valid():
            try:
                trust = create_trust(
                    name=form.cleaned_data['name'],
                    details=form.cleaned_data['details'],
                    created_by=request.user,
                )
            except ValidationError as exc:
                form.add_error(None, '; '.join(exc.messages))
            else:
                log_audit_event(
                    request=request,
                    action='trusts.trust_created',
                    target=trust,
                    details=f"Name={trust.name}",
                )
                messages.success(request, f'Trust "{trust.name}" created successfully.')
                return redirect('trust_manage')
    else:
        form = TrustForm()

    return render(request, 'trusts/manage.html', {
        'form': form,
        'trusts': list_trusts(),
    })


@login_required
@role_required(LEDGER_ROLES)
def trust_inflow(request):
    form = TrustInflowForm(request.POST or None)

    if request.method == 'POST' and form.is_valid():
        if not consume_token(request, 'inflow'):
            messages.warning(request, 'This form was already submitted. Check the trust balance before retrying.')
            return redirect('trust_inflow')

        trust = form.cleaned_data['trust']
        try:
            entry = apply_inflow(
                trust=trust,
                amount=form.cleaned_data['amount'],
                notes=form.cleaned_data['notes'],
                created_by=request.user,
            )
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        except ReferenceNotFound as exc:
            messages.error(request, f"{exc} Reload and try again.")
            return redirect('trust_inflow')
        except StorageFailure as exc:
            form.add_error(None, f"{exc} Nothing was saved; please retry.")
        else:
            log_audit_event(
                request=request,
                action='trusts.inflow_added',
                target=entry,
                details=f"Trust={trust.pk}, Amount={entry.amount}",
            )
            messages.success(request, f"Added {entry.amount} to {trust.name}. New balance: {trust.balance}.")
            return redirect('trust_inflow')

    return render(request, 'trusts/inflow.html', {
        'form': form,
        'submit_token': issue_token(request, 'inflow'),
    })


@login_required
@role_required(LEDGER_ROLES)
def trust_outflow(request):
    search_form = StudentSearchForm(request.GET or None)
    search_results = []
    if search_form.is_valid() and search_form.cleaned_data['q']:
        search_results = search_students(search_form.cleaned_data['q'])

    selected_student = None
    student_id = request.POST.get('student') or request.GET.get('student')
    if student_id and str(student_id).isdigit():
        selected_student = Student.objects.filter(pk=int(student_id)).first()

    form = TrustOutflowForm(
        request.POST if request.method == 'POST' else None,
        student=selected_student,
    )

    if request.method == 'POST' and form.is_valid():
        if not consume_token(request, 'outflow'):
            messages.warning(request, 'This form was already submitted. Check the trust balance before retrying.')
            return redirect('trust_outflow')

        trust = form.cleaned_data['trust']
        student = form.cleaned_data['student']
        try:
            entry = apply_outflow(
                trust=trust,
                student=student,
                academic_year=form.cleaned_data['academic_year'],
                amount=form.cleaned_data['amount'],
                fees_type=form.cleaned_data['fees_type'],
                notes=form.cleaned_data['notes'],
                created_by=request.user,
            )
        except ValidationError as exc:
            form.add_error(None, '; '.join(exc.messages))
        except ReferenceNotFound as exc:
            messages.error(request, f"{exc} Reload and try again.")
            return redirect('trust_outflow')
        except StorageFailure as exc:
            form.add_error(None, f"{exc} Nothing was saved; please retry.")
        else:
            log_audit_event(
                request=request,
                action='trusts.fund_assigned',
                target=entry,
                details=(
                    f"Trust={trust.pk}, Student={student.pk}, Year={entry.academic_year_id}, "
                    f"Amount={entry.amount}, FeesType={entry.fees_type}"
                ),
            )
            messages.success(request, f"Assigned {entry.amount} from {trust.name} to {student.fullname}.")
            return redirect('trust_outflow')

    return render(request, 'trusts/outflow.html', {
        'form': form,
        'search_form': search_form,
        'search_results': search_results,
        'selected_student': selected_student,
        'academic_years': academic_years_for_student(selected_student) if selected_student else [],
        'submit_token': issue_token(request, 'outflow'),
    })


@login_required
@role_required(LEDGER_ROLES)
def trust_analytics(request):
    if request.GET:
        data = request.GET
    else:
        date_from, date_to = TransactionFilterForm.default_range()
        data = {'date_from': date_from.isoformat(), 'date_to': date_to.isoformat()}

    filter_form = TransactionFilterForm(data)
    transactions = []
    course_summary = []
    trust_summary = []
    selected_course_id = None

    if filter_form.is_valid():
        filters = filter_form.to_filters()
        rows = load_transaction_rows(date_from=filters.date_from, date_to=filters.date_to)

        # The search box narrows the transaction tables, not the totals.
        totals_filters = replace(filters, search='')
        course_summary = summarize_by_course(rows, totals_filters)
        trust_summary = summarize_by_trust(rows, totals_filters)

        detail_course = request.GET.get('detail_course')
        if detail_course and detail_course.isdigit():
            selected_course_id = int(detail_course)
            transactions = detail_for_course(rows, selected_course_id, filters)
        else:
            transactions = filter_transactions(rows, filters)

    selected_course = next(
        (item for item in course_summary if item.course_id == selected_course_id),
        None,
    )

    return render(request, 'trusts/analytics.html', {
        'filter_form': filter_form,
        'transactions': transactions,
        'course_summary': course_summary,
        'trust_summary': trust_summary,
        'selected_course_id': selected_course_id,
        'selected_course': selected_course,
        'query_string': _query_without(request.GET, 'detail_course'),
    })


@login_required
@role_required(LEDGER_ROLES)
def trust_statement(request, pk):
    trust = get_object_or_404(Trust, pk=pk)
    rows = load_transaction_rows(trust=trust)
    # Only the newest rows are loaded; back out the opening balance from the current one.
    opening_balance = trust.balance - sum((row.signed_amount for row in rows), Decimal('0.00'))

    return render(request, 'trusts/statement.html', {
        'trust': trust,
        'opening_balance': opening_balance,
        'statement': list(reversed(running_balance(rows, opening_balance=opening_balance))),
    })


def _query_without(params, key):
    params = params.copy()
    params.pop(key, None)
    return params.urlencode()
