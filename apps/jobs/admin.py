from django.contrib import admin
from .models import Job, Offer


class OfferInline(admin.TabularInline):
    model = Offer
    extra = 0
    readonly_fields = ('worker', 'amount', 'status', 'submitted_at')


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('title', 'client', 'budget', 'status', 'assigned_worker_name', 'created_at')
    list_filter = ('status', 'category')
    search_fields = ('title', 'pincode', 'client__username')
    inlines = [OfferInline]
