from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect, render


@login_required
def role_redirect(request):

    if request.user.can_manage_trusts:
        return redirect('trust_manage')

    return render(request, 'users/dashboard.html')
