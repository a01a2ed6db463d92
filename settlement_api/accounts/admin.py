from django.contrib import admin

from .models import CustomUser, ExpertProfile


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = ('id', 'email', 'user_type', 'is_staff', 'is_active', 'created_at')
    list_filter = ('user_type', 'is_staff', 'is_active')
    search_fields = ('email', 'first_name', 'last_name')


@admin.register(ExpertProfile)
class ExpertProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'vetting_status', 'payout_account_id', 'updated_at')
    list_filter = ('vetting_status',)
    search_fields = ('user__email',)
