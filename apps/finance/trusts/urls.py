from django.urls import path

from .views import (
    trust_analytics,
    trust_inflow,
    trust_manage,
    trust_outflow,
    trust_statement,
)

urlpatterns = [
    path('', trust_manage, name='trust_manage'),
    path('inflow/', trust_inflow, name='trust_inflow'),
    path('outflow/', trust_outflow, name='trust_outflow'),
    path('analytics/', trust_analytics, name='trust_analytics'),
    path('<int:pk>/statement/', trust_statement, name='trust_statement'),
]
