from django.urls import path

from . import views

urlpatterns = [
    path('api/users/', views.user_list, name='user_list'),
    path('api/users/<str:handle>/', views.user_detail, name='user_detail'),
    path('api/users/<str:handle>/stats/', views.user_stats, name='user_stats'),
    path('api/users/<str:handle>/submissions/', views.user_submissions, name='user_submissions'),
    path('api/users/<str:handle>/rating-history/', views.user_rating_history, name='user_rating_history'),
    path('api/contests/', views.contest_list, name='contest_list'),
]
