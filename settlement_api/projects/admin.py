from django.contrib import admin

from .models import Milestone, Project, ProjectStateTransition


class ProjectStateTransitionInline(admin.TabularInline):
    model = ProjectStateTransition
    extra = 0
    can_delete = False
    readonly_fields = ('from_state', 'to_state', 'triggered_by', 'reason', 'metadata', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'client', 'state', 'selected_expert', 'open_for_bidding', 'is_archived')
    list_filter = ('state', 'open_for_bidding', 'is_archived')
    search_fields = ('title', 'client__email')
    # state only moves through the state machine
    readonly_fields = ('state', 'rejection_reason')
    inlines = [ProjectStateTransitionInline]


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'title', 'amount', 'status', 'is_paid')
    list_filter = ('status', 'is_paid')
